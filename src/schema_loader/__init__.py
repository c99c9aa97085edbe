"""Schema loader command line tool."""
