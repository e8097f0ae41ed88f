"""CodeRelay: real-time relay for collaborative code editing."""
