"""Group membership resolution for the Limits Service."""
