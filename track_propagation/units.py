"""
Unit constants.

Native units are mm, GeV, tesla and ns.  Multiply a value by a constant to
express it in native units, e.g. ``2 * units.m`` or ``500 * units.MeV``.
"""
mm = 1.0
cm = 10.0 * mm
m = 1000.0 * mm
um = 1e-3 * mm

GeV = 1.0
MeV = 1e-3 * GeV

T = 1.0
ns = 1.0

# speed of light [mm/ns]
c = 299.792458 * mm / ns

# q/p [1/GeV] * B [T] -> curvature [1/mm] for unit charge
LORENTZ_FACTOR = 0.299792458e-3
