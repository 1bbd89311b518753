"""Data models: canonical CV input and timeline payload shapes."""
