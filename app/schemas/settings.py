# app/schemas/settings.py
from pydantic import ConfigDict, model_validator
from sqlmodel import SQLModel, Field


class OfferSettings(SQLModel):
    """
    Offer / request timing knobs (minutes and hours).

    Invariant: offer_validity_min <= offer_validity_default <= offer_validity_max
    """

    offer_validity_default: int = 30
    offer_validity_min: int = 15
    offer_validity_max: int = 120
    request_timeout_hours: int = 4
    dispute_window_hours: int = 48


class OfferSettingsUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    offer_validity_default: int = Field(ge=1)
    offer_validity_min: int = Field(ge=1)
    offer_validity_max: int = Field(ge=1)
    request_timeout_hours: int = Field(ge=1)
    # Omitted keeps the stored dispute window
    dispute_window_hours: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.offer_validity_min > self.offer_validity_max:
            raise ValueError("El mínimo no puede ser mayor que el máximo")
        if not (
            self.offer_validity_min
            <= self.offer_validity_default
            <= self.offer_validity_max
        ):
            raise ValueError("El valor por defecto debe estar entre el mínimo y el máximo")
        return self


class PricingTier(SQLModel):
    model_config = ConfigDict(extra="forbid")

    min: int = Field(gt=0)
    suggested: int = Field(gt=0)
    max: int = Field(gt=0)

    @model_validator(mode="after")
    def check_order(self):
        if not (self.min <= self.suggested <= self.max):
            raise ValueError("Debe cumplirse: mínimo ≤ sugerido ≤ máximo")
        return self


class PricingSettings(SQLModel):
    """Prices (CLP) per amount tier plus urgency surcharge and commission."""

    price_100l: PricingTier
    price_1000l: PricingTier
    price_5000l: PricingTier
    price_10000l: PricingTier
    urgency_surcharge_percent: int = Field(ge=0, le=100)
    default_commission_percent: int = Field(ge=1, le=100)


class PricingSettingsUpdate(PricingSettings):
    model_config = ConfigDict(extra="forbid")
