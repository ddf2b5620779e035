from __future__ import annotations

import numpy as np

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class ProcessingService:
    """Pure NumPy pixel operations. Inputs and outputs are float32 arrays normalized to [0, 1].

    Channel convention:
    - Grayscale: (H, W)
    - RGB: (H, W, 3)
    """

    # Exposure: I_out = I_in * 2^ev
    @staticmethod
    def adjust_exposure(matrix: np.ndarray, ev: float) -> np.ndarray:
        out = np.clip(matrix.astype(np.float32) * np.float32(2.0 ** float(ev)), 0.0, 1.0)
        return out.astype(np.float32)

    # Brightness: I_out = I_in * multiplier
    @staticmethod
    def adjust_brightness(matrix: np.ndarray, multiplier: float) -> np.ndarray:
        out = np.clip(matrix.astype(np.float32) * float(multiplier), 0.0, 1.0)
        return out.astype(np.float32)

    # Linear contrast around mid-gray: a = 1 + c/100, I_out = a * I_in + 0.5 * (1 - a)
    @staticmethod
    def adjust_contrast(matrix: np.ndarray, contrast: float) -> np.ndarray:
        a = 1.0 + float(contrast) / 100.0
        b = 0.5 * (1.0 - a)
        out = np.clip(a * matrix.astype(np.float32) + b, 0.0, 1.0)
        return out.astype(np.float32)

    # Saturation: blend between luminance and color, I_out = Y + s * (I_in - Y)
    @staticmethod
    def adjust_saturation(matrix: np.ndarray, saturation: float) -> np.ndarray:
        mat = matrix.astype(np.float32)
        if mat.ndim != 3 or mat.shape[2] < 3:
            return mat
        s = max(0.0, float(saturation))
        luma = ProcessingService.grayscale_luminosity(mat)[..., None]
        out = np.clip(luma + s * (mat[..., :3] - luma), 0.0, 1.0)
        return out.astype(np.float32)

    # Multiply each channel by an (r, g, b) filter in [0, 1]
    @staticmethod
    def apply_channel_tint(matrix: np.ndarray, rgb: tuple[float, float, float]) -> np.ndarray:
        mat = matrix.astype(np.float32)
        if mat.ndim == 2:
            mat = np.repeat(mat[..., None], 3, axis=2)
        filt = np.asarray(rgb, dtype=np.float32)
        return np.clip(mat[..., :3] * filt, 0.0, 1.0).astype(np.float32)

    # Warm (> 0) cuts blue and a little green; cool (< 0) cuts red and a little green
    @staticmethod
    def temperature_filter(temperature: float) -> tuple[float, float, float] | None:
        if temperature == 0:
            return None
        intensity = abs(float(temperature)) / 100.0
        r = g = b = 255.0
        if temperature > 0:
            b = max(0.0, 255.0 - np.floor(200.0 * intensity))
            g = max(0.0, 255.0 - np.floor(50.0 * intensity))
        else:
            r = max(0.0, 255.0 - np.floor(200.0 * intensity))
            g = max(0.0, 255.0 - np.floor(50.0 * intensity))
        return (r / 255.0, g / 255.0, b / 255.0)

    # Magenta (> 0) cuts green; green (< 0) cuts red and blue
    @staticmethod
    def tint_filter(tint: float) -> tuple[float, float, float] | None:
        if tint == 0:
            return None
        intensity = abs(float(tint)) / 100.0
        reduced = max(0.0, np.floor(255.0 * (1.0 - intensity * 0.65))) / 255.0
        if tint > 0:
            return (1.0, reduced, 1.0)
        return (reduced, 1.0, reduced)

    # Unsharp mask: I_out = I_in + amount * (I_in - gaussian(I_in, sigma))
    @staticmethod
    def sharpen(matrix: np.ndarray, sigma: float, amount: float = 1.0) -> np.ndarray:
        mat = matrix.astype(np.float32)
        blurred = ProcessingService._gaussian_blur(mat, sigma)
        out = np.clip(mat + float(amount) * (mat - blurred), 0.0, 1.0)
        return out.astype(np.float32)

    # Grayscale (Luminosity): 0.299*R + 0.587*G + 0.114*B
    @staticmethod
    def grayscale_luminosity(matrix: np.ndarray) -> np.ndarray:
        mat = matrix.astype(np.float32)
        if mat.ndim == 3 and mat.shape[2] >= 3:
            return np.dot(mat[..., :3], LUMA_WEIGHTS).astype(np.float32)
        return mat

    # Crop region [top:top+height, left:left+width]
    @staticmethod
    def crop(matrix: np.ndarray, left: int, top: int, width: int, height: int) -> np.ndarray:
        return matrix.astype(np.float32)[top : top + height, left : left + width]

    # Resize to width and/or height; a missing side keeps the aspect ratio
    @staticmethod
    def resize(matrix: np.ndarray, width: int | None, height: int | None) -> np.ndarray:
        h, w = matrix.shape[:2]
        if not width and not height:
            return matrix.astype(np.float32)
        if width and not height:
            height = max(1, round(h * width / w))
        elif height and not width:
            width = max(1, round(w * height / h))
        return ProcessingService._resize_nearest(matrix.astype(np.float32), (int(height), int(width)))

    # --------- helpers ---------
    @staticmethod
    def _gaussian_blur(img: np.ndarray, sigma: float) -> np.ndarray:
        sigma = float(sigma)
        if sigma <= 0:
            return img
        radius = max(1, int(np.ceil(3.0 * sigma)))
        offsets = np.arange(-radius, radius + 1, dtype=np.float32)
        kernel = np.exp(-(offsets**2) / (2.0 * sigma * sigma))
        kernel /= kernel.sum()
        out = img
        # separable: rows then columns, edge-replicated borders
        for axis in (0, 1):
            pad = [(0, 0)] * out.ndim
            pad[axis] = (radius, radius)
            padded = np.pad(out, pad, mode="edge")
            size = out.shape[axis]
            acc = np.zeros_like(out)
            for i, weight in enumerate(kernel):
                acc += weight * np.take(padded, np.arange(i, i + size), axis=axis)
            out = acc
        return out.astype(np.float32)

    @staticmethod
    def _resize_nearest(img: np.ndarray, target_hw: tuple[int, int]) -> np.ndarray:
        th, tw = target_hw
        h, w = img.shape[:2]
        if h == th and w == tw:
            return img
        # create index grid mapping target->source
        ys = (np.arange(th) * (h / th)).astype(np.int64)
        xs = (np.arange(tw) * (w / tw)).astype(np.int64)
        ys = np.clip(ys, 0, h - 1)
        xs = np.clip(xs, 0, w - 1)
        if img.ndim == 2:
            return img[ys[:, None], xs[None, :]].astype(np.float32)
        return img[ys[:, None], xs[None, :], :].astype(np.float32)
