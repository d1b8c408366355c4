"""
Test suite for DEDUCE

- Fact store, inference engine and query planner unit tests
- Knowledge base loading (local files and mocked HTTP)
- Settings and CLI tests
"""
