"""Core workflow, configuration and data model"""
