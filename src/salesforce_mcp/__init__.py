"""Salesforce tools and SOQL analysis over the Model Context Protocol."""

__version__ = "0.1.0"
