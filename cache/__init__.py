"""cache/ -- Key-value cache backing component service reads."""
