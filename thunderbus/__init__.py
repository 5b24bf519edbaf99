"""Transactional outbox, AMQP delivery handling, backoff, topology declaration and publisher state."""

__version__ = "0.1.0"