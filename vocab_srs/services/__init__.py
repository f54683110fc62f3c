"""Services package for scheduling, sessions and progress bookkeeping."""
