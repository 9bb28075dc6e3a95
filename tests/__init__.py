"""mergejoin test suite.

Test organization:
- unit/test_records.py: record model and tokenizer
- unit/test_keys.py: key extraction and ordering
- unit/test_cursor.py: rewindable cursors
- unit/test_engine.py: merge-join state machine
- unit/test_output.py: row assembly and writers
- unit/test_runner.py, unit/test_cli.py: end-to-end runs
"""
