"""
CodeSync Backend — API Routes Package
======================================

Route Inventory:
    - auth.py:      /api/auth/*       (register, login, logout, session, OAuth)
    - snippets.py:  /api/snippets/*   (CRUD, explore, likes, comments)
    - users.py:     /api/users/*      (search, public profiles, follows)
    - profile.py:   /api/profile/*    (own profile, password, avatar)
    - health.py:    /health

Routes are THIN: they extract request data, call a service and shape the
response. Business rules live in codesync.services.
"""
