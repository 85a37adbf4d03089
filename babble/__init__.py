"""babble - order-n Markov chains learned from paginated text sources."""

__version__ = "0.1.0"
