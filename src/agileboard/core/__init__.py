"""Core domain, backend and synchronization modules for agileboard."""
