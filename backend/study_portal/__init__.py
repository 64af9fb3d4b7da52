"""Application package for the school study portal backend.

The portal keeps a file library, an exam-schedule calendar and a
self-service quiz feature. Records live in an in-memory store for the
lifetime of the process; individual modules contain the concrete
implementations and documentation.
"""
