"""HTTP access to the Shelly cloud API."""
