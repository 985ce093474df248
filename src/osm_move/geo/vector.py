# geo/vector.py
Vec = tuple[float, float]
Loc = tuple[float, float]  # (lon, lat) in geographic coordinates


def vec_add(a: Vec, b: Vec) -> Vec:
    return (a[0] + b[0], a[1] + b[1])


def vec_subtract(a: Vec, b: Vec) -> Vec:
    return (a[0] - b[0], a[1] - b[1])


def vec_interp(a: Vec, b: Vec, t: float) -> Vec:
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def vec_equals(a: Vec, b: Vec, epsilon: float | None = None) -> bool:
    if epsilon:
        return abs(a[0] - b[0]) <= epsilon and abs(a[1] - b[1]) <= epsilon
    return a[0] == b[0] and a[1] == b[1]


def vec_cross(a: Vec, b: Vec, origin: Vec = (0.0, 0.0)) -> float:
    # z component of the 3d cross product; sign gives the turn direction
    return (a[0] - origin[0]) * (b[1] - origin[1]) - (a[1] - origin[1]) * (b[0] - origin[0])
