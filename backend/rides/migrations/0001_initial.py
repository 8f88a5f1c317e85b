import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Ride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('pickup_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_address', models.TextField(blank=True, default='')),
                ('drop_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('drop_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('drop_address', models.TextField(blank=True, default='')),
                ('ride_type', models.CharField(choices=[('solo', 'Solo'), ('pool', 'Pool')], default='solo', max_length=10)),
                ('status', models.CharField(choices=[('waiting', 'Waiting for Driver'), ('accepted', 'Accepted'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='waiting', max_length=20)),
                ('fare', models.DecimalField(decimal_places=2, max_digits=8)),
                ('estimated_duration', models.PositiveIntegerField(blank=True, null=True)),
                ('actual_duration', models.PositiveIntegerField(blank=True, null=True)),
                ('distance', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('pool_group_id', models.CharField(blank=True, max_length=64, null=True)),
                ('pool_passengers', models.JSONField(blank=True, null=True)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=10)),
                ('rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('feedback', models.TextField(blank=True, null=True)),
                ('cancelled_by', models.CharField(blank=True, choices=[('rider', 'Rider'), ('driver', 'Driver')], max_length=10, null=True)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rides_driven', to=settings.AUTH_USER_MODEL)),
                ('rider', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rides_requested', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'rides',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['status', '-created_at'], name='rides_status_created_idx')],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('driver__isnull', False), ('status__in', ['accepted', 'in_progress', 'completed'])), models.Q(('driver__isnull', True), ('status__in', ['waiting', 'cancelled'])), _connector='OR'), name='ride_driver_matches_status'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['waiting', 'accepted', 'in_progress'])), fields=('rider',), name='one_active_ride_per_rider'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['accepted', 'in_progress'])), fields=('driver',), name='one_active_ride_per_driver'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PoolSuggestion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('savings', models.DecimalField(decimal_places=2, max_digits=6)),
                ('compatibility_score', models.DecimalField(decimal_places=2, max_digits=3, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('ride', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pool_suggestions', to='rides.ride')),
                ('suggested_ride', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to='rides.ride')),
            ],
            options={
                'db_table': 'pool_suggestions',
                'ordering': ['-compatibility_score', '-created_at'],
                'constraints': [models.UniqueConstraint(fields=('ride', 'suggested_ride'), name='unique_pool_pair')],
            },
        ),
    ]
