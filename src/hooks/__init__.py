"""Host lifecycle hook entry points."""
