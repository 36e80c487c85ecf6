"""
Frontdesk 酒店前台管理后端
预订、房间分配、退房结算与发票
"""
__version__ = "0.1.0"
