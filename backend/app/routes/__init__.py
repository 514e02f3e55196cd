# Routes package init
"""
ChampStep Backend — API Routes Package
========================================

Route Inventory:
    - registration.py:    POST /api/registrations (tagged), /dancer, /crew
                          GET  /api/registrations/me
    - recommendations.py: POST /api/claims/{claim_id}/recommendations
    - admin.py:           GET  /api/admin/claims
                          GET  /api/admin/claims/{kind}/{request_id}
                          POST /api/admin/claims/{kind}/{request_id}/decision
                          POST /api/admin/recommendations/{id}/decision
                          GET  /api/admin/stats
                          POST /api/admin/rankings/recalculate
    - dancers.py:         GET  /api/dancers, /api/dancers/{id}, /api/crews
    - competitions.py:    POST /api/step-score/preview, /api/step-score/from-listing
                          GET  /api/competitions/{id}/step-score
    - health.py:          GET  /health

Routes stay thin: resolve the Actor, call one service method, return its
result. Business rules live in app.services.
"""
