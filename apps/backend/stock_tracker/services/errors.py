"""服務層例外（由路由轉為對應的 HTTP 狀態碼）"""


class NotFoundError(ValueError):
    """資源不存在 → 404"""


class ConflictError(ValueError):
    """資料重複或衝突 → 409"""
