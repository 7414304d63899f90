"""Services that integrate with the directory and the session store."""
