"""Meta-category classification: cache-first resolution with Gemini fallback"""
