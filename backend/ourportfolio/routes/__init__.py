# Routes package init
"""
OurPortfolio Backend — API Routes Package
==========================================

Route Inventory:
    - portfolios.py:  GET    /api/portfolios/autocomplete   (tech-stack autocomplete)
                      GET    /api/portfolios                (list, optional keyword filter)
                      GET    /api/portfolios/{id}           (detail)
                      POST   /api/portfolios                (create)
                      PUT    /api/portfolios/{id}           (update)
                      DELETE /api/portfolios/{id}           (delete)
                      GET    /api/files/{path}              (cover images)
    - users.py:       GET    /api/users/{id}
    - health.py:      GET    /health, GET /health/ready

Design Principle:
    Routes are THIN: extract request data, call a service, shape the response.
"""
