"""Services for TabSync: the import engine and its sources, sinks and stores."""
