"""Built-in plugins: browser engines and site strategies."""
