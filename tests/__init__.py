"""
Test suite for the MedVision API.

Contains unit and integration tests for authentication, scheduling,
video room access and prescriptions.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
