# Core package - configuration, database, errors and failure policies
