"""Protection count storage for the Limits Service."""
