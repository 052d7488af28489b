"""
Services wrapping the Supabase backend and the simulated automation tooling.
"""
