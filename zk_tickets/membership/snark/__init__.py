"""SNARK verifier backend."""
