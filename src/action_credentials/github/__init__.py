"""GitHub REST and Actions runner integration."""
