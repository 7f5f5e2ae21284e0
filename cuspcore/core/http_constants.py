"""Constantes HTTP pour éviter les valeurs magiques dans le code.

Codes de statut utilisés par l'adaptateur du store distant (et par ses tests).
"""

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_INTERNAL_SERVER_ERROR = 500
