"""
FastAPI REST API for the Library service.

This package provides:
- User registration and login with bcrypt-hashed passwords
- JWT bearer tokens and a request pipeline gating protected routes
- Book create, read, update and delete backed by MongoDB
"""
