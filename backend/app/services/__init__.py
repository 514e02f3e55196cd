# Services package init
"""
ChampStep Backend — Services Layer
====================================

Business rules between the routes (HTTP) and the database.

Service Inventory:
    - RegistrationService:   sign-up, duplicate detection, claim filing
    - ClaimService:          admin queue, pending → approved | rejected
    - RecommendationService: peer vouches and auto-approval
    - DancerService:         ranking directory and system statistics
    - step_score:            competition rating and ranking rebuild

Every workflow method takes the session and the acting user explicitly;
nothing reads "the current user" from ambient state.
"""
