"""
Utility Scripts.

- run_pipeline: run a whole search/scrape/analysis from the command line
"""
