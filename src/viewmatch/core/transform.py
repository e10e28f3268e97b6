from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation as Rot


@dataclass(frozen=True, eq=False)
class Transform:
    """
    Rigid 3D transform X_out = R X_in + t.

    "Null" transforms (failed estimation) are represented by `None` at call sites,
    never by a sentinel instance.
    """

    R: np.ndarray  # (3,3)
    t: np.ndarray  # (3,)

    def __post_init__(self) -> None:
        R = np.asarray(self.R, dtype=np.float64).reshape(3, 3)
        t = np.asarray(self.t, dtype=np.float64).reshape(3)
        if not (np.all(np.isfinite(R)) and np.all(np.isfinite(t))):
            raise ValueError("non-finite transform")
        object.__setattr__(self, "R", R)
        object.__setattr__(self, "t", t)

    @classmethod
    def identity(cls) -> "Transform":
        return cls(np.eye(3, dtype=np.float64), np.zeros((3,), dtype=np.float64))

    @classmethod
    def from_matrix(cls, M: np.ndarray) -> "Transform":
        M = np.asarray(M, dtype=np.float64)
        if M.shape not in ((4, 4), (3, 4)):
            raise ValueError("expected a (4,4) or (3,4) matrix")
        return cls(M[:3, :3], M[:3, 3])

    @classmethod
    def from_rvec_tvec(cls, rvec: np.ndarray, tvec: np.ndarray) -> "Transform":
        R = Rot.from_rotvec(np.asarray(rvec, dtype=np.float64).reshape(3)).as_matrix()
        return cls(R, tvec)

    @classmethod
    def from_xyz_rpy(cls, x: float, y: float, z: float, roll: float, pitch: float, yaw: float) -> "Transform":
        R = Rot.from_euler("xyz", [roll, pitch, yaw]).as_matrix()
        return cls(R, np.array([x, y, z], dtype=np.float64))

    def matrix(self) -> np.ndarray:
        M = np.eye(4, dtype=np.float64)
        M[:3, :3] = self.R
        M[:3, 3] = self.t
        return M

    def rvec(self) -> np.ndarray:
        return Rot.from_matrix(self.R).as_rotvec()

    def rpy(self) -> tuple[float, float, float]:
        roll, pitch, yaw = Rot.from_matrix(self.R).as_euler("xyz")
        return float(roll), float(pitch), float(yaw)

    def inverse(self) -> "Transform":
        Rt = self.R.T
        return Transform(Rt, -Rt @ self.t)

    def __matmul__(self, other: "Transform") -> "Transform":
        return Transform(self.R @ other.R, self.R @ other.t + self.t)

    def apply(self, XYZ: np.ndarray) -> np.ndarray:
        XYZ = np.asarray(XYZ, dtype=np.float64).reshape(-1, 3)
        return XYZ @ self.R.T + self.t[None, :]

    def rotation_angle(self) -> float:
        return float(np.linalg.norm(self.rvec()))

    def translation_norm(self) -> float:
        return float(np.linalg.norm(self.t))

    def is_identity(self, atol: float = 1e-9) -> bool:
        return bool(np.allclose(self.R, np.eye(3), atol=atol) and np.allclose(self.t, 0.0, atol=atol))

    def pretty(self) -> str:
        roll, pitch, yaw = self.rpy()
        x, y, z = (float(v) for v in self.t)
        return f"xyz=[{x:.6f} {y:.6f} {z:.6f}] rpy=[{roll:.6f} {pitch:.6f} {yaw:.6f}]"
