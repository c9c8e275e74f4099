"""core/ -- Kernel: configuration and database setup. Imports nothing from the other packages."""
