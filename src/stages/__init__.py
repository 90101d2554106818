"""
CLI stages package.

Each stage module follows a consistent pattern:
- Docstring with Input/Output files documented
- Configuration constants at the top
- main() function as the entry point, printing a banner-style report
"""
