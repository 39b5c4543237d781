"""RQ worker process and jobs."""
