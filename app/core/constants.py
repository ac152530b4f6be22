# app/core/constants.py
"""
Static catalogues shared by models, schemas and services.

Comunas are the service-area unit: a supplier only sees requests whose
comuna is in its service areas.
"""

COMUNAS: dict[str, str] = {
    "villarrica": "Villarrica",
    "pucon": "Pucón",
    "lican-ray": "Licán Ray",
    "curarrehue": "Curarrehue",
    "freire": "Freire",
}

# Liters a consumer can order
WATER_AMOUNTS: tuple[int, ...] = (100, 1000, 5000, 10000)


def comuna_name(comuna_id: str | None) -> str:
    if not comuna_id:
        return "tu comuna"
    return COMUNAS.get(comuna_id, comuna_id)
