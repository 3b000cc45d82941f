"""Database engine, session and declarative base"""
