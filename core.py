"""Core data model, configuration and input parsing for retirement planning."""

from __future__ import annotations

import datetime as dt
import math
import numbers
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple


# Fixed planning assumptions
RETIREMENT_DURATION = 40  # Years the corpus has to last
INFLATION_RATE = 0.03
NUM_SIMULATIONS = 1_000

# Damped fixed-point contribution solver
SOLVER_TOLERANCE = 1_000.0
SOLVER_DAMPING = 10.0
SOLVER_INITIAL_DIVISOR = 1.5
SOLVER_MAX_ITERATIONS = 100

CRITICAL_ZONE_YEARS = 5
UNREALISTIC_INCOME_PERCENT = 75.0
PERCENTILES = (0.10, 0.25, 0.50, 0.75, 0.90)

# Sanity ranges for form input
MIN_AGE = 18
MAX_AGE = 100


@dataclass(frozen=True)
class InvestmentVehicle:
    name: str
    return_rate: float  # annual %, e.g. 12.0
    risk_level: str
    volatility: float = 0.0  # annual % standard deviation

    @property
    def is_volatile(self) -> bool:
        return self.volatility > 0


# Ordered from lowest to highest risk. The first entry is the default
# post-retirement vehicle.
INVESTMENT_VEHICLES: Tuple[InvestmentVehicle, ...] = (
    InvestmentVehicle("Very Low Risk", 4.0, "Very Low Risk", 0.0),
    InvestmentVehicle("Low Risk", 7.5, "Low Risk", 0.0),
    InvestmentVehicle("Moderate Risk", 12.0, "Moderate Risk", 15.0),
    InvestmentVehicle("High Risk", 18.0, "High Risk", 25.0),
    InvestmentVehicle("Very High Risk", 22.0, "Very High Risk", 35.0),
)


@dataclass(frozen=True)
class PlannerConfig:
    retirement_duration: int = RETIREMENT_DURATION
    inflation_rate: float = INFLATION_RATE
    num_simulations: int = NUM_SIMULATIONS
    solver_tolerance: float = SOLVER_TOLERANCE
    solver_damping: float = SOLVER_DAMPING
    solver_initial_divisor: float = SOLVER_INITIAL_DIVISOR
    solver_max_iterations: int = SOLVER_MAX_ITERATIONS
    critical_zone_years: int = CRITICAL_ZONE_YEARS
    unrealistic_income_percent: float = UNREALISTIC_INCOME_PERCENT
    percentiles: Tuple[float, ...] = PERCENTILES
    # Calendar year of row 0; None means the current year
    start_year: Optional[int] = None

    def __post_init__(self) -> None:
        if self.retirement_duration <= 0:
            raise ValueError("Retirement duration must be positive")
        if self.num_simulations <= 0:
            raise ValueError("Number of simulations must be positive")
        if self.solver_tolerance <= 0:
            raise ValueError("Solver tolerance must be positive")
        if self.solver_damping <= 0 or self.solver_initial_divisor <= 0:
            raise ValueError("Solver damping and initial divisor must be positive")
        if self.solver_max_iterations < 0:
            raise ValueError("Solver iteration cap cannot be negative")
        if self.critical_zone_years < 0:
            raise ValueError("Critical zone length cannot be negative")
        if len(self.percentiles) != len(PERCENTILES):
            raise ValueError(f"Expected {len(PERCENTILES)} percentile levels")
        for p in self.percentiles:
            if not 0 <= p < 1:
                raise ValueError(f"Percentile must be in [0, 1): {p!r}")

    def first_year(self) -> int:
        """Calendar year of the first projection row."""
        if self.start_year is not None:
            return self.start_year
        return dt.date.today().year


DEFAULT_CONFIG = PlannerConfig()


@dataclass(frozen=True)
class CalculationInputs:
    current_age: int
    retirement_age: int
    current_income: float
    investment_vehicle: InvestmentVehicle
    replacement_ratio: float
    safe_withdrawal_rate: float
    salary_growth_rate: float = 0.0
    # None selects the lowest-risk vehicle of the catalog
    post_retirement_vehicle: Optional[InvestmentVehicle] = None

    def __post_init__(self) -> None:
        checked = {
            "Current age": self.current_age,
            "Retirement age": self.retirement_age,
            "Current income": self.current_income,
            "Replacement ratio": self.replacement_ratio,
            "Safe withdrawal rate": self.safe_withdrawal_rate,
            "Salary growth rate": self.salary_growth_rate,
        }
        for label, value in checked.items():
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ValueError(f"{label} must be a number")
            if not math.isfinite(value):
                raise ValueError(f"{label} must be a finite number")
        if not isinstance(self.current_age, numbers.Integral):
            raise ValueError("Current age must be a whole number")
        if not isinstance(self.retirement_age, numbers.Integral):
            raise ValueError("Retirement age must be a whole number")
        if self.retirement_age <= self.current_age:
            raise ValueError("Retirement age must be greater than current age")
        if self.current_income <= 0:
            raise ValueError("Current income must be greater than zero")
        if not 0 < self.replacement_ratio <= 1:
            raise ValueError("Replacement ratio must be between 0% and 100%")
        if not 0 < self.safe_withdrawal_rate <= 1:
            raise ValueError("Safe withdrawal rate must be between 0% and 100%")

    @property
    def years_until_retirement(self) -> int:
        return self.retirement_age - self.current_age


def parse_percent(val: Any) -> float:
    """Convert a percentage like '75%', '75' or 75 to a float 0.75."""

    text = str(val).strip().rstrip("%")
    try:
        pct = float(text) / 100
    except ValueError as exc:
        raise ValueError(f"Invalid percentage: {val!r}") from exc
    if not math.isfinite(pct):
        raise ValueError(f"Invalid percentage: {val!r}")
    return pct


def parse_amount(val: Any) -> float:
    """Convert a currency string like '£52,000' to a float 52000.0."""

    text = str(val).replace("£", "").replace("$", "").replace(",", "").strip()
    try:
        amt = float(text)
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {val!r}") from exc
    if not math.isfinite(amt):
        raise ValueError(f"Invalid amount: {val!r}")
    return amt


def parse_int(val: Any, label: str) -> int:
    """Parse a whole number form field."""

    try:
        return int(str(val).strip())
    except ValueError as exc:
        raise ValueError(f"{label} must be a whole number: {val!r}") from exc


def parse_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    text = str(val).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid yes/no value: {val!r}")


def select_vehicle(
    catalog: Sequence[InvestmentVehicle], index: Any, label: str = "Investment vehicle"
) -> InvestmentVehicle:
    """Return the catalog entry at ``index``."""

    idx = parse_int(index, label)
    if not 0 <= idx < len(catalog):
        raise ValueError(f"{label} must be one of 0-{len(catalog) - 1}")
    return catalog[idx]


def lowest_risk_vehicle(catalog: Sequence[InvestmentVehicle]) -> InvestmentVehicle:
    if not catalog:
        raise ValueError("Investment vehicle catalog is empty")
    return catalog[0]


# Default form values
DEFAULT_INPUTS = {
    "current_age": 24,
    "retirement_age": 40,
    "current_income": 52_000,
    "investment_vehicle": 1,
    "retirement_income_percent": 75,
    "safe_withdrawal_rate": 4,
    "salary_growth": 2,
    "use_lowest_risk_post_retirement": True,
    "post_retirement_vehicle": 0,
}

LABEL_OVERRIDES = {
    "current_age": "Current Age",
    "retirement_age": "Target Retirement Age",
    "current_income": "Current Annual Income",
    "investment_vehicle": "Pre-Retirement Investment Vehicle",
    "retirement_income_percent": "Retirement Income (% of final salary)",
    "safe_withdrawal_rate": "Safe Withdrawal Rate",
    "salary_growth": "Annual Salary Growth",
    "use_lowest_risk_post_retirement": "Use Lowest Risk Vehicle After Retirement",
    "post_retirement_vehicle": "Post-Retirement Investment Vehicle",
}


def load_inputs(
    form: Mapping[str, Any],
    catalog: Sequence[InvestmentVehicle] = INVESTMENT_VEHICLES,
) -> CalculationInputs:
    """Parse raw form values and return validated CalculationInputs."""

    values = dict(DEFAULT_INPUTS)
    values.update(form)

    current_age = parse_int(values["current_age"], "Current age")
    retirement_age = parse_int(values["retirement_age"], "Retirement age")
    if not MIN_AGE <= current_age <= MAX_AGE:
        raise ValueError(f"Current age must be between {MIN_AGE} and {MAX_AGE}")
    if retirement_age <= current_age:
        raise ValueError("Retirement age must be greater than current age")

    current_income = parse_amount(values["current_income"])
    if current_income <= 0:
        raise ValueError("Current income must be greater than zero")

    vehicle = select_vehicle(catalog, values["investment_vehicle"])

    replacement_ratio = parse_percent(values["retirement_income_percent"])
    if not 0.01 <= replacement_ratio <= 1:
        raise ValueError("Retirement income must be between 1% and 100% of salary")
    safe_withdrawal_rate = parse_percent(values["safe_withdrawal_rate"])
    if not 0.01 <= safe_withdrawal_rate <= 0.10:
        raise ValueError("Safe withdrawal rate must be between 1% and 10%")
    salary_growth_rate = parse_percent(values["salary_growth"])
    if not 0 <= salary_growth_rate <= 0.20:
        raise ValueError("Salary growth must be between 0% and 20%")

    if parse_bool(values["use_lowest_risk_post_retirement"]):
        post_vehicle = lowest_risk_vehicle(catalog)
    else:
        post_vehicle = select_vehicle(
            catalog, values["post_retirement_vehicle"], "Post-retirement vehicle"
        )

    return CalculationInputs(
        current_age=current_age,
        retirement_age=retirement_age,
        current_income=current_income,
        investment_vehicle=vehicle,
        replacement_ratio=replacement_ratio,
        safe_withdrawal_rate=safe_withdrawal_rate,
        salary_growth_rate=salary_growth_rate,
        post_retirement_vehicle=post_vehicle,
    )
