"""
Tests Package
=============

This package contains all tests for the Taxi Driver Efficiency pipeline.

Test Categories:
    - unit: Fast tests with no Spark session
    - integration: Tests that run a local SparkSession
"""
