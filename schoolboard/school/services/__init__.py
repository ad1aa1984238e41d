"""Use cases for list pages, record forms and dashboard widgets."""
