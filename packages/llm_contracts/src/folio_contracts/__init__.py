"""Response contracts for the cursor agent's LLM collaborators."""
