"""Domain: cache override enum, options value objects, policy and exceptions."""
