"""
SNMP device-communication module.

架構：
    validator        — OID / device / bulk 參數檢查（純函式，無 I/O）
    engine           — pysnmp async session（單次交換）
    mock_engine      — in-memory agent（SNMP_MOCK=true 與測試）
    response_cache   — TTL + LRU 回應快取
    client           — get / walk / bulk_walk / set / probe / system & interface info
    poller           — probe → discover → reconcile 狀態機
    polling_service  — 從 DB 載入設備、併發 poll、寫回 DB
"""
