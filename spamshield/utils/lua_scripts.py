# =================================================================================
# Файл: spamshield/utils/lua_scripts.py
# Описание: LUA-скрипты для атомарных операций в Redis.
# =================================================================================

class LuaScripts:
    """
    Хранит LUA-скрипты как строковые константы для предзагрузки в Redis.
    Использование LUA-скриптов гарантирует атомарность сложных операций.
    """

    UPSERT_THREAT_PATTERN = """
        -- Атомарно вставляет паттерн угрозы или увеличивает его счетчик.
        -- KEYS[1]: pattern_key (spamshield:threat:pattern:<hash>)
        -- KEYS[2]: by_confidence_key (ZSET)
        -- KEYS[3]: by_created_key (ZSET)
        -- KEYS[4]: by_detected_key (ZSET)
        -- KEYS[5]: ip_index_key (SET)
        -- ARGV[1]: pattern_hash
        -- ARGV[2]: pattern_type
        -- ARGV[3]: confidence
        -- ARGV[4]: now_unix
        -- ARGV[5]: pattern_data_json
        -- ARGV[6]: ai_analysis_json
        -- ARGV[7]: confidence_step
        -- ARGV[8]: ip

        if redis.call('EXISTS', KEYS[1]) == 1 then
            -- 1. Повторное обнаружение: счетчик +1, уверенность только растет
            local current = tonumber(redis.call('HGET', KEYS[1], 'confidence_score')) or 0
            local incoming = tonumber(ARGV[3])
            local updated = math.min(100, math.max(current, incoming) + tonumber(ARGV[7]))
            local count = redis.call('HINCRBY', KEYS[1], 'detection_count', 1)
            redis.call('HSET', KEYS[1],
                'confidence_score', tostring(updated),
                'last_detected', ARGV[4]
            )
            redis.call('ZADD', KEYS[2], updated, ARGV[1])
            redis.call('ZADD', KEYS[4], ARGV[4], ARGV[1])
            return count
        end

        -- 2. Новый паттерн
        redis.call('HSET', KEYS[1],
            'pattern_hash', ARGV[1],
            'pattern_type', ARGV[2],
            'confidence_score', ARGV[3],
            'detection_count', 1,
            'last_detected', ARGV[4],
            'created_at', ARGV[4],
            'pattern_data', ARGV[5],
            'ai_analysis', ARGV[6],
            'is_verified', 0
        )
        redis.call('ZADD', KEYS[2], ARGV[3], ARGV[1])
        redis.call('ZADD', KEYS[3], ARGV[4], ARGV[1])
        redis.call('ZADD', KEYS[4], ARGV[4], ARGV[1])
        if ARGV[8] ~= '' then
            redis.call('SADD', KEYS[5], ARGV[1])
        end
        return 1
    """
