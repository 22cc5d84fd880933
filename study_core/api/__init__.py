"""HTTP 代理端点（chat / explain）。"""
